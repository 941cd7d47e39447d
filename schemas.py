"""
Request schemas for the CRM collections.

Each model maps to a MongoDB collection named after the lowercase class
name.  Values are not validated beyond their basic JSON type: every
field is optional, and handlers only pass on the fields the client
actually sent (``model_dump(exclude_unset=True)``).
"""
from typing import Optional

from pydantic import BaseModel, Field


class Customer(BaseModel):
    name: Optional[str] = Field(None, description="Full name of customer")
    email: Optional[str] = Field(None, description="Email address of customer")
    phone: Optional[str] = Field(None, description="Phone number")
    status: Optional[str] = Field(None, description="Free-form status label such as new or contacted")
    assignedAgent: Optional[str] = Field(None, description="Id of the agent handling this customer")


class Agent(BaseModel):
    name: Optional[str] = Field(None, description="Full name of agent")
    email: Optional[str] = Field(None, description="Email address of agent")
    phone: Optional[str] = Field(None, description="Phone number")
    status: Optional[str] = Field(None, description="Free-form availability label")
    activeTickets: Optional[int] = Field(None, description="Number of tickets currently open for this agent")
