from typing import Optional

from pydantic import BaseModel


class ProvisioningResult(BaseModel):
    repository: str
    success: bool
    secrets_synced: int = 0
    message: Optional[str] = None
