from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union


class SignedRequest(BaseModel):
    """Envelope for every mutation; `payload` is checked against the signature as sent."""
    signer: str
    issued_at: str
    sig_b64: str
    payload: Dict[str, Any]


class NetworksRequest(BaseModel):
    networks: List[str]


class AgreementRequest(BaseModel):
    nonce: int = Field(ge=0)
    update_type: Union[str, int]
    data: Dict[str, Any] = Field(default_factory=dict)
    owner: Optional[str] = None
    creator: Optional[str] = None


class AdoptionRequest(BaseModel):
    network_id: str
    update_type: Union[str, int]
    payload: Dict[str, Any] = Field(default_factory=dict)
    network_id_hash: Optional[str] = None
