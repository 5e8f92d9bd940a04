"""UTC timezone enforcement.

Sets the TZ environment variable to UTC so block timestamps and donation
commit times are handled consistently.
"""

import os

os.environ["TZ"] = "UTC"
