"""Top-level pytest configuration.

Selects the offscreen Qt platform before any test module imports PySide6.
The QCoreApplication fixture lives in ``tests/conftest.py``.
"""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
