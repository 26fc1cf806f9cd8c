import sys

from . import exec_

sys.exit(exec_())
