"""
Credential-style environment variables passed to every Terraform invocation.
"""

from types import MappingProxyType
from typing import Dict, Mapping, Optional


SUBSCRIPTION_ID_ENV_NAME = "ARM_SUBSCRIPTION_ID"
CLIENT_ID_ENV_NAME = "ARM_CLIENT_ID"
CLIENT_SECRET_ENV_NAME = "ARM_CLIENT_SECRET"
TENANT_ID_ENV_NAME = "ARM_TENANT_ID"


class TerraformOptions:
    """Holds environment variables such as Azure service principal credentials."""

    def __init__(self, env_vars: Optional[Mapping[str, str]] = None):
        self._env_vars: Dict[str, str] = dict(env_vars or {})

    def get_env_var(self, name: str) -> Optional[str]:
        return self._env_vars.get(name)

    def set_env_var(self, name: str, value: str) -> None:
        self._env_vars[name] = value

    @property
    def env_vars(self) -> Mapping[str, str]:
        """Read-only snapshot of the configured variables."""
        return MappingProxyType(dict(self._env_vars))

    @property
    def arm_subscription_id(self) -> Optional[str]:
        return self.get_env_var(SUBSCRIPTION_ID_ENV_NAME)

    @arm_subscription_id.setter
    def arm_subscription_id(self, value: str) -> None:
        self.set_env_var(SUBSCRIPTION_ID_ENV_NAME, value)

    @property
    def arm_client_id(self) -> Optional[str]:
        return self.get_env_var(CLIENT_ID_ENV_NAME)

    @arm_client_id.setter
    def arm_client_id(self, value: str) -> None:
        self.set_env_var(CLIENT_ID_ENV_NAME, value)

    @property
    def arm_client_secret(self) -> Optional[str]:
        return self.get_env_var(CLIENT_SECRET_ENV_NAME)

    @arm_client_secret.setter
    def arm_client_secret(self, value: str) -> None:
        self.set_env_var(CLIENT_SECRET_ENV_NAME, value)

    @property
    def arm_tenant_id(self) -> Optional[str]:
        return self.get_env_var(TENANT_ID_ENV_NAME)

    @arm_tenant_id.setter
    def arm_tenant_id(self, value: str) -> None:
        self.set_env_var(TENANT_ID_ENV_NAME, value)
