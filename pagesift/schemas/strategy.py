from pydantic import BaseModel

# Capability flags advertised by strategies
CAP_PROXY = "proxy"
CAP_HEADER_ROTATION = "header-rotation"
CAP_JSON_HARVEST = "json-harvest"
CAP_JAVASCRIPT = "javascript"
CAP_INTERACTION = "interaction"


class StrategyDescriptor(BaseModel):
    name: str
    description: str
    capabilities: frozenset[str] = frozenset()

    model_config = {"frozen": True}
