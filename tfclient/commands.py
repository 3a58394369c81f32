"""
Terraform command names and their non-interactive flags.
"""

from enum import Enum
from typing import Dict, Optional


class TerraformCommand(str, Enum):
    """Logical steps the client can run."""
    VERSION = "version"
    INIT = "init"
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"
    OUTPUT = "output"


# Terraform 0.15 removed `destroy -force`; -auto-approve covers both
NON_INTERACTIVE_FLAGS: Dict[TerraformCommand, str] = {
    TerraformCommand.APPLY: "-auto-approve",
    TerraformCommand.DESTROY: "-auto-approve",
    TerraformCommand.OUTPUT: "-json",
}


def non_interactive_flag(command: str) -> Optional[str]:
    """Return the flag that keeps command from prompting, if it needs one."""
    try:
        return NON_INTERACTIVE_FLAGS.get(TerraformCommand(command))
    except ValueError:
        return None
