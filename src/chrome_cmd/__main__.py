"""Allow ``python -m chrome_cmd``."""

from .main import main

if __name__ == "__main__":
    main()
