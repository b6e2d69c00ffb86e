"""Main entry point for the keepyups package."""

from keepyups.cli import app


def main():
    """Run the keepyups command-line interface."""
    app()


if __name__ == "__main__":
    main()
