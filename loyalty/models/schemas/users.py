"""
Pydantic schemas for registration and login.
"""
from pydantic import BaseModel, Field, ConfigDict

class UserCredentials(BaseModel):
    login: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=1, max_length=200)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "login": "alice",
            "password": "correct horse battery staple"
        }
    })

class TokenRead(BaseModel):
    user_id: int
    login: str
    token: str
    token_type: str = "Bearer"
