from pydantic import BaseModel

class ChatIn(BaseModel):
    prompt: str | None = None

class ChatOut(BaseModel):
    result: str

class ChatError(BaseModel):
    error: str
