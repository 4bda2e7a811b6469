from sqlmodel import SQLModel


class BaseModel(SQLModel):
    """Common base for all table models."""
