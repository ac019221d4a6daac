# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Pydantic configuration models for pykafkasync.

The values are expected to be resolved already (from files, environment or
command-line flags) by the caller; these models only validate them.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

# -1 leaves the socket buffer at the operating system default.
USE_DEFAULT_BUFFER_SIZE: int = -1


class SyncProducerConfig(BaseModel):
    """Configuration for a SyncProducer talking to a single broker."""

    model_config = ConfigDict(validate_assignment=True)

    host: str = Field(description="Broker host name or address")
    port: int = Field(default=9092, ge=1, le=65535)
    send_buffer_bytes: int = Field(
        default=100 * 1024,
        ge=USE_DEFAULT_BUFFER_SIZE,
        description="Socket send buffer size, -1 for the OS default",
    )
    receive_buffer_bytes: int = Field(
        default=USE_DEFAULT_BUFFER_SIZE,
        ge=USE_DEFAULT_BUFFER_SIZE,
        description="Socket receive buffer size, -1 for the OS default",
    )
    request_timeout_ms: int = Field(default=10000, ge=1, le=2_147_483_647)
    connect_timeout_ms: int = Field(default=10000, ge=1, le=2_147_483_647)

    # Client identification
    client_id: str = ""

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Broker host cannot be empty")
        return v

    @field_validator("send_buffer_bytes", "receive_buffer_bytes")
    @classmethod
    def validate_buffer_size(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Buffer size must be positive or -1 for the OS default")
        return v

    @property
    def broker_info(self) -> str:
        """Identifier of the target broker used for request statistics."""
        return f"host_{self.host}-port_{self.port}"
