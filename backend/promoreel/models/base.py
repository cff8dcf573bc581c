"""
Base comum dos modelos trocados com o cliente.

O contrato JSON usa camelCase; os atributos Python ficam em snake_case.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Serializa com os nomes de campo do contrato JSON."""
        return self.model_dump(mode="json", by_alias=True)
