"""Allow running lxcspawn with ``python -m lxcspawn``."""

from lxcspawn.cli.main import main


if __name__ == "__main__":
    main()
