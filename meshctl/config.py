"""Configuration management for the meshctl application."""
import os

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


class Config:
    """Application configuration with sensible defaults."""

    # Mesh installation
    MESH_NAMESPACE: str = os.getenv("MESHCTL_NAMESPACE", "easemesh")
    IMAGE_REGISTRY: str = os.getenv("MESHCTL_IMAGE_REGISTRY", "docker.io")

    # Mesh control plane API
    MESH_SERVER: str = os.getenv("MESHCTL_SERVER", "http://127.0.0.1:2381")
    CONTROL_PLANE_ADMIN_URL: str = os.getenv("MESHCTL_ADMIN_URL", "http://127.0.0.1:2381")

    # Timeouts (in seconds)
    API_TIMEOUT: int = int(os.getenv("API_TIMEOUT", "30"))

    # Retry configuration for remote resource files
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_DELAY: float = float(os.getenv("RETRY_DELAY", "1.0"))

    # Readiness polling
    POLL_INTERVAL: float = float(os.getenv("MESHCTL_POLL_INTERVAL", "0.1"))
    POLL_MAX_ATTEMPTS: int = int(os.getenv("MESHCTL_POLL_MAX_ATTEMPTS", "600"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Client state
    RC_FILE_NAME: str = ".meshctlrc"
