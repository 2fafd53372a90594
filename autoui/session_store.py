"""
Streamlit session binding for auto-UI state objects.
Keeps CrudForm / CrudTable instances alive across reruns and drives their
coroutines to completion inside a script run.
"""

import asyncio
import streamlit as st
from typing import Any, Callable, Coroutine, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')

KEY_PREFIX = "autoui"


class SessionStore:
    """Per-session storage for auto-UI state, keyed by a caller-supplied name."""

    @staticmethod
    def state_key(key: str) -> str:
        return f"{KEY_PREFIX}_{key}"

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        """Get a stored object, or `default` when absent."""
        state_key = SessionStore.state_key(key)
        if state_key in st.session_state:
            return st.session_state[state_key]
        return default

    @staticmethod
    def set(key: str, value: Any):
        st.session_state[SessionStore.state_key(key)] = value

    @staticmethod
    def get_or_create(key: str, factory: Callable[[], T]) -> T:
        """
        Return the stored object for `key`, creating it with `factory` on first use.

        Args:
            key: Name of the state object (e.g. 'product_form')
            factory: Zero-argument callable building the object

        Returns:
            The object kept in session state
        """
        state_key = SessionStore.state_key(key)
        if state_key not in st.session_state:
            st.session_state[state_key] = factory()
            logger.debug(f"Created session object '{state_key}'")
        return st.session_state[state_key]

    @staticmethod
    def discard(key: str) -> bool:
        """Remove a stored object. Returns True when something was removed."""
        state_key = SessionStore.state_key(key)
        if state_key in st.session_state:
            del st.session_state[state_key]
            logger.debug(f"Discarded session object '{state_key}'")
            return True
        return False

    @staticmethod
    def has(key: str) -> bool:
        return SessionStore.state_key(key) in st.session_state


def run_async(coro: Coroutine[Any, Any, T]) -> Optional[T]:
    """
    Run a coroutine to completion from a Streamlit script run.

    Streamlit executes scripts outside an event loop, so each call gets its
    own loop. There is no timeout or cancellation.
    """
    return asyncio.run(coro)
