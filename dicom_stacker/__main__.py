"""Allow ``python -m dicom_stacker``."""

import sys

from dicom_stacker.cli.main import main

sys.exit(main())
