"""
Stintkeeper entry point
"""

from stintkeeper.cli import cli


def main() -> None:
    """
    Run the stintkeeper command line interface with logging configured
    from the application settings
    """
    cli(prog_name="stintkeeper", obj={"configure_logging": True})


if __name__ == "__main__":
    main()
