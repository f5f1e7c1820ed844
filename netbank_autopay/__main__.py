import sys

from netbank_autopay.cli import main

sys.exit(main())
