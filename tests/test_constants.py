"""
Centralized test credentials and secrets.

All test-only credentials are loaded from environment variables when available,
with clearly non-production placeholders as fallbacks.
"""

from __future__ import annotations

import base64
import os

TEST_RESULTS_CALLBACK_KEY = os.environ.get("TEST_RESULTS_CALLBACK_KEY") or "test-callback-key"
TEST_SENDGRID_API_KEY = os.environ.get("TEST_SENDGRID_API_KEY") or "k"
TEST_BATCH_ACCOUNT_KEY = base64.b64encode(b"test-batch-key").decode("ascii")
TEST_FROM_ADDRESS = "autotune@example.com"

RECOMMENDATIONS_LOG = """\
Parameter      | Pump     | Autotune | Days Missing
---------------------------------------------------------
ISF [mg/dL/U]  | 86.000   | 81.320   |
Carb Ratio[g/U]| 10.000   | 9.876    |
  00:00        | 0.850    | 0.801    | 0
  00:30        | 0.850    | 0.812    | 0
  01:00        | 0.900    | 0.925    | 2
"""
