import sys

from lifecycle_verifier.cli import main

sys.exit(main())
