# Allow `python -m mcpp`
import sys

from mcpp.cli import main

sys.exit(main())
