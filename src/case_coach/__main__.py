import sys

from case_coach.cli import main

if __name__ == "__main__":
    sys.exit(main())
