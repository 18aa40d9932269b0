"""Reusable Testcontainers configuration for MongoDB integration tests."""

from typing import Optional

from testcontainers.mongodb import MongoDbContainer as BaseMongoDbContainer


class MongoDBContainer(BaseMongoDbContainer):
    """Single-node MongoDB container."""

    def __init__(self, image: str = "mongo:7.0", **kwargs: object) -> None:
        """Initialize MongoDB container.

        Args:
            image: MongoDB image tag
            **kwargs: Additional container arguments
        """
        super().__init__(image=image, **kwargs)


# Singleton container instance for the test session
_mongodb_container: Optional[MongoDBContainer] = None


def get_mongodb_container() -> MongoDBContainer:
    """Get or create the MongoDB container instance.

    Returns:
        Started MongoDBContainer instance
    """
    global _mongodb_container
    if _mongodb_container is None:
        container = MongoDBContainer()
        container.start()
        _mongodb_container = container
    return _mongodb_container


def stop_mongodb_container() -> None:
    """Stop the MongoDB container if one was started."""
    global _mongodb_container
    if _mongodb_container is not None:
        _mongodb_container.stop()
        _mongodb_container = None
