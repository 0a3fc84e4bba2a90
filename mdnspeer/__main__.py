"""Allows running mdnspeer with `python -m mdnspeer`."""

import sys

from mdnspeer.app import main

sys.exit(main())
