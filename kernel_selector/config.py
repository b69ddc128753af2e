from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from kernel_selector.messages import JUPYTER_SERVER_LOCAL_LAUNCH


class KernelSelectorSettings(BaseSettings):
    """Settings loaded from KERNEL_SELECTOR_* environment variables"""

    model_config = SettingsConfigDict(env_prefix="KERNEL_SELECTOR_")

    # 'local' means we launch our own server / raw kernels, anything else is a remote server url
    jupyter_server_uri: str = JUPYTER_SERVER_LOCAL_LAUNCH
    # Extra directories to search for kernelspecs, ahead of the standard jupyter locations
    kernel_spec_dirs: List[Path] = []
    # Seconds, used for requests against a Jupyter server
    request_timeout: float = 5.0
