"""Menu and option records consumed by pricing and slot generation."""

from pydantic import BaseModel, Field

from reservation_core.schemas.resource_schema import ResourceType


class MenuOption(BaseModel):
    """Optional add-on priced on top of a menu."""
    id: int
    menu_id: int
    name: str = ""
    price: int = 0


class Menu(BaseModel):
    """A bookable service with its time footprint and price."""
    id: int
    store_id: int
    name: str = ""
    base_price: int = 0
    prep_duration: int = Field(default=0, ge=0)
    base_duration: int = Field(gt=0)
    cleanup_duration: int = Field(default=0, ge=0)
    resource_types: list[ResourceType] = Field(default_factory=list)
    options: list[MenuOption] = Field(default_factory=list)
    is_active: bool = True

    @property
    def total_duration(self) -> int:
        """Minutes the resource is occupied: prep + base + cleanup."""
        return self.prep_duration + self.base_duration + self.cleanup_duration

    def accepts(self, resource_type: ResourceType) -> bool:
        return not self.resource_types or resource_type in self.resource_types
