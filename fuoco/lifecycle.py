"""
Contains the LifecycleController, which owns the apply -> wait -> destroy sequence of a deployment.

Teardown can be triggered by an explicit completion, by SIGINT/SIGTERM or by an exception
unwinding through the guarded scope. Whichever comes first wins, and destroy is called at most
once per successful apply, with the exact variables that were applied.
"""

import sys
import queue
import signal
import socket
import logging
import threading
from enum import Enum
from contextlib import contextmanager
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional
from .error import ProvisionException
from .provisioner import Provisioner
from .util import LifecycleState

LOGGER = logging.getLogger("fuoco")

class TerminationSignal(Enum):
    INTERRUPT = int(signal.SIGINT)
    TERMINATE = int(signal.SIGTERM)

class TerminationCause(Enum):
    COMPLETED = 'completed'
    INTERRUPT = 'interrupt'
    TERMINATE = 'terminate'
    CLOSED = 'closed'
    FAULT = 'fault'


def _ignore_signal(signum, frame) -> None:
    LOGGER.warning(f'Ignoring signal {signum}, Terraform destroy is running')

@contextmanager
def shield_signals():
    """
    Keeps SIGINT and SIGTERM from interrupting the block, then restores the previous handlers.
    Signal handlers can only be changed from the main thread, elsewhere this does nothing.
    """

    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = {}
    for sig in TerminationSignal:
        previous[sig.value] = signal.getsignal(sig.value)
        signal.signal(sig.value, _ignore_signal)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


class TeardownAction:
    """
    A callable that runs the wrapped action at most once, whichever thread or code path calls it.
    Later callers block until the first call has finished and then get False.
    """

    def __init__(self, action: Callable[[], None]):
        self._action = action
        self._lock = threading.RLock()
        self.consumed = False

    def __call__(self) -> bool:
        with self._lock:
            if self.consumed:
                return False
            self.consumed = True
            action, self._action = self._action, None
            action()
            return True


class LifecycleGuard:
    """
    Holds the exact (template, variables, verbose) triple used for apply.
    Releasing it runs the teardown once. Created by LifecycleController.deploy only.

    Attributes:
        template_path (Path): the template that was applied
        variables (MappingProxyType): read-only copy of the applied variables
        verbose (bool): whether terraform output is shown
        cause (TerminationCause): the cause that released the guard, None until released
    """

    def __init__(self, template_path, variables: Mapping[str, str], verbose: bool,
                 destroy: Callable[['LifecycleGuard'], None]):
        self.template_path = template_path
        self.variables = variables
        self.verbose = verbose
        self.cause = None
        self._lock = threading.Lock()
        self._teardown = TeardownAction(lambda: destroy(self))

    @property
    def released(self) -> bool:
        return self._teardown.consumed

    def release(self, cause: TerminationCause) -> bool:
        """Tears the deployment down unless that already happened. Returns True if this call did it."""

        with self._lock:
            if self.cause is None:
                self.cause = cause
        return self._teardown()


class SignalListener:
    """
    Listens for SIGINT and SIGTERM on a dedicated thread and reports the first one through notify.

    The Python-level handlers do nothing, the signal number reaches the listener thread through
    signal.set_wakeup_fd. If the listener stops before any signal arrives, notify(None) is called.
    Must be entered from the main thread.
    """

    def __init__(self, notify: Callable[[Optional[TerminationSignal]], None]):
        self._notify = notify
        self._prev_handlers = {}
        self._prev_wakeup_fd = -1
        self._rsock = None
        self._wsock = None
        self._thread = None

    def __enter__(self) -> 'SignalListener':
        self._rsock, self._wsock = socket.socketpair()
        self._wsock.setblocking(False)
        self._prev_wakeup_fd = signal.set_wakeup_fd(self._wsock.fileno(), warn_on_full_buffer=False)
        for sig in TerminationSignal:
            self._prev_handlers[sig.value] = signal.getsignal(sig.value)
            signal.signal(sig.value, self._handle_signal)
        self._thread = threading.Thread(target=self._listen, name='fuoco-signal-listener',
                                        daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        for signum, handler in self._prev_handlers.items():
            signal.signal(signum, handler)
        self._prev_handlers.clear()
        signal.set_wakeup_fd(self._prev_wakeup_fd)
        # closing the write end wakes the listener with an empty read
        self._wsock.close()
        self._thread.join(timeout=5)
        self._rsock.close()

    def _handle_signal(self, signum, frame) -> None:
        pass

    def _listen(self) -> None:
        received = None
        try:
            while received is None:
                data = self._rsock.recv(1)
                if not data:
                    break
                try:
                    received = TerminationSignal(data[0])
                except ValueError:
                    continue
        except OSError as e:
            LOGGER.warning(f'Signal listener stopped: {e}')
        self._notify(received)


class LifecycleController:
    """
    Owns the apply -> wait-for-termination -> destroy sequence of a single deployment.

    Attributes:
        provisioner (Provisioner): engine used to apply and destroy
        state (LifecycleState): where the deployment is in its lifecycle
        teardown_error (Exception): the error of a failed guarded teardown, if any

    Methods:
        deploy(template_path, variables, verbose):
            Applies the template and creates the guard that owns the teardown.
        listen():
            Returns a SignalListener that reports signals to wait_for_termination.
        complete():
            Lets wait_for_termination return without a signal.
        wait_for_termination():
            Blocks until the first termination cause arrives.
        guard():
            Context manager that releases the guard when the scope exits, normally or not.
        destroy(template_path, variables, verbose):
            Destroys directly. Errors propagate, used by the undeploy subcommand.
    """

    def __init__(self, provisioner: Provisioner, listener_factory=SignalListener):
        self.provisioner = provisioner
        self.listener_factory = listener_factory
        self.state = LifecycleState.IDLE
        self.teardown_error = None
        self.cause = None
        self._guard = None
        # one-shot single-consumer channel, the first message wins
        self._channel = queue.Queue(maxsize=1)

    def deploy(self, template_path, variables: Mapping[str, str], verbose: bool) -> Dict[str, str]:
        """
        Applies the template. On failure the state becomes FAILED and the provisioner's
        exception propagates unchanged; nothing is torn down since nothing was created.

            Parameters:
                template_path (Path): the Terraform template
                variables (dict): the variable map, frozen for the matching destroy
                verbose (bool): show terraform output

            Returns:
                dict: outputs reported by the provisioner, in insertion order
        """

        if self.state != LifecycleState.IDLE:
            raise ProvisionException(f'Cannot deploy from state {self.state.name}')
        frozen = MappingProxyType(dict(variables))
        self.state = LifecycleState.APPLYING
        try:
            outputs = self.provisioner.apply(template_path, frozen, verbose)
        except BaseException:
            self.state = LifecycleState.FAILED
            raise
        self.state = LifecycleState.DEPLOYED
        self._guard = LifecycleGuard(template_path, frozen, verbose, self._guarded_destroy)
        return dict(outputs or {})

    def _post(self, message) -> None:
        try:
            self._channel.put_nowait(message)
        except queue.Full:
            LOGGER.debug(f'Ignoring {message}, termination already requested')

    def listen(self) -> SignalListener:
        return self.listener_factory(self._post)

    def complete(self) -> None:
        self._post(TerminationCause.COMPLETED)

    def wait_for_termination(self) -> TerminationCause:
        """Blocks until completion, a signal or the listener closing, whichever comes first."""

        message = self._channel.get()
        if message is None:
            cause = TerminationCause.CLOSED
        elif isinstance(message, TerminationSignal):
            cause = TerminationCause[message.name]
        else:
            cause = message
        LOGGER.info(f'Termination cause: {cause.value}')
        if self.cause is None:
            self.cause = cause
        return cause

    @contextmanager
    def guard(self):
        """
        Yields the LifecycleGuard and releases it when the block exits.
        If the block raises, teardown is attempted before the exception propagates.
        """

        if self._guard is None:
            raise ProvisionException('Nothing was deployed, there is nothing to guard')
        try:
            yield self._guard
        except BaseException as e:
            LOGGER.error(f'{type(e).__name__}: {e}, cleaning up Terraform...')
            self.release(TerminationCause.FAULT)
            raise
        self.release(self.cause or TerminationCause.COMPLETED)

    def release(self, cause: TerminationCause) -> bool:
        if self._guard is None:
            return False
        return self._guard.release(cause)

    def _guarded_destroy(self, guard: LifecycleGuard) -> None:
        # best effort: report the failure but never raise from a teardown path
        self.state = LifecycleState.TEARING_DOWN
        LOGGER.info(f'Tearing down after {guard.cause.value}')
        try:
            # the teardown is already consumed, a later signal must not abort it
            with shield_signals():
                self.provisioner.destroy(guard.template_path, guard.variables, guard.verbose)
        except Exception as e:
            self.state = LifecycleState.FAILED_DURING_TEARDOWN
            self.teardown_error = e
            LOGGER.error(f'Failed to destroy Terraform resources: {e}')
            print(f'Failed to destroy Terraform resources: {e}', file=sys.stderr)
        else:
            self.state = LifecycleState.DONE

    def destroy(self, template_path, variables: Mapping[str, str], verbose: bool) -> None:
        """Destroys the resources described by the template and variables. Errors propagate."""

        self.state = LifecycleState.TEARING_DOWN
        try:
            self.provisioner.destroy(template_path, MappingProxyType(dict(variables)), verbose)
        except BaseException:
            self.state = LifecycleState.FAILED_DURING_TEARDOWN
            raise
        self.state = LifecycleState.DONE
