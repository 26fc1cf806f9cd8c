"""Signed-in owner identity.

The identity source is fed by whatever authenticates the user. It hands out
immutable :class:`Identity` snapshots and only notifies listeners when the
owner id actually changes.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from PySide6 import QtCore


@dataclass(frozen=True)
class Identity:
    """Snapshot of the authenticated owner.

    Attributes:
        id: Opaque user id, ``None`` when nobody is signed in.
        loading: True while the authentication state is still being resolved.
    """
    id: Optional[str] = None
    loading: bool = False

    @property
    def is_present(self) -> bool:
        return self.id is not None and not self.loading


class IdentitySource(QtCore.QObject):
    """Holds the current identity and emits changes deduplicated by id.

    Signals:
        identityChanged (object): Emitted with the new :class:`Identity`.
        loadingChanged (bool): Emitted when the loading flag flips.
    """
    identityChanged = QtCore.Signal(object)
    loadingChanged = QtCore.Signal(bool)

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent)
        self._identity = Identity(id=None, loading=True)

    @property
    def identity(self) -> Identity:
        return self._identity

    def set_user(self, uid: Optional[str], anonymous: bool = False) -> None:
        """Record the outcome of an authentication transition.

        Anonymous sessions do not own any data and are treated as signed out.

        Args:
            uid: The authenticated user id, or None when signed out.
            anonymous: Whether the session is an anonymous one.
        """
        if anonymous:
            logging.debug('Anonymous session; treating as signed out.')
            uid = None
        if uid is not None and not isinstance(uid, str):
            raise TypeError(f'User id must be a string, got {type(uid)}.')
        if uid == '':
            uid = None

        previous = self._identity
        self._identity = Identity(id=uid, loading=False)

        if previous.loading:
            self.loadingChanged.emit(False)

        # The first resolution always notifies, even when nobody is signed in
        if previous.id == uid and not previous.loading:
            logging.debug(f'Identity unchanged ({uid!r}), not emitting.')
            return

        logging.debug(f'Identity changed: {previous.id!r} -> {uid!r}')
        self.identityChanged.emit(self._identity)

    def sign_out(self) -> None:
        self.set_user(None)
