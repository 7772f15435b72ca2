import sys

from supplier_scoring.cli import main

sys.exit(main())
