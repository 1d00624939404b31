"""singleton pattern base class implementation"""

from typing import Dict


class SingletonInstance:
    """base class for singleton pattern implementation

    each subclass gets its own instance slot, so a Logger and any other
    singleton never share state through the base class.
    """

    _instances: Dict[type, "SingletonInstance"] = {}

    @classmethod
    def instance(cls, *args, **kwargs):
        """create or get the singleton instance

        constructor arguments only take effect on the first call.
        """
        existing = SingletonInstance._instances.get(cls)
        if existing is None:
            existing = cls(*args, **kwargs)
            SingletonInstance._instances[cls] = existing
        return existing

    @classmethod
    def reset_instance(cls):
        """drop the singleton instance (for testing)"""
        SingletonInstance._instances.pop(cls, None)
