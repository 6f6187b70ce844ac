"""Entry point for 'python -m rowguard' command."""

from rowguard.cli import main

if __name__ == "__main__":
    main()
