"""Allow ``python -m gllvm_ordination``."""

from .main import main

if __name__ == "__main__":
    main()
