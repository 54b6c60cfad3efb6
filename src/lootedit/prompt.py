"""Modal form asking for SSH connection details."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, Input, Static

from .remote import DEFAULT_PORT, DEFAULT_TIMEOUT, RemoteConfig

FORM_FIELDS = (
    ("host", "Host", False),
    ("user", "User", False),
    ("port", "Port", False),
    ("password", "Password (optional)", True),
    ("key", "Key path (optional)", False),
    ("passphrase", "Key passphrase (optional)", True),
)


def build_config(
    values: dict[str, str],
    timeout: float = DEFAULT_TIMEOUT,
    trust_new_host: bool = False,
) -> RemoteConfig:
    """Turn raw form values into a :class:`RemoteConfig`.

    Raises ``ValueError`` with a message fit for the form's error line.
    """
    host = values.get("host", "").strip()
    user = values.get("user", "").strip()
    if not host:
        raise ValueError("Host is required")
    if not user:
        raise ValueError("User is required")
    port_text = values.get("port", "").strip()
    try:
        port = int(port_text) if port_text else DEFAULT_PORT
    except ValueError:
        raise ValueError(f"Invalid port: {port_text}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Invalid port: {port}")
    return RemoteConfig(
        host=host,
        username=user,
        port=port,
        password=values.get("password") or None,
        key_path=values.get("key", "").strip() or None,
        passphrase=values.get("passphrase") or None,
        timeout=timeout,
        trust_new_host=trust_new_host,
    )


def form_defaults(config: RemoteConfig | None, user: str = "") -> dict[str, str]:
    if config is None:
        return {"host": "", "user": user, "port": str(DEFAULT_PORT)}
    return {
        "host": config.host,
        "user": config.username,
        "port": str(config.port),
        "password": config.password or "",
        "key": config.key_path or "",
        "passphrase": config.passphrase or "",
    }


class ConnectScreen(ModalScreen[RemoteConfig | None]):
    """Collects host, user, port and a password or key file."""

    DEFAULT_CSS = """
    ConnectScreen {
        align: center middle;
    }
    #connect-dialog {
        width: 70%;
        height: auto;
        border: solid $accent;
        background: $surface;
        padding: 1 2;
    }
    #connect-buttons {
        height: auto;
        margin-top: 1;
    }
    #connect-error {
        color: $error;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(
        self,
        defaults: dict[str, str],
        timeout: float = DEFAULT_TIMEOUT,
        trust_new_host: bool = False,
    ) -> None:
        super().__init__()
        self.defaults = defaults
        self.timeout = timeout
        self.trust_new_host = trust_new_host

    def compose(self) -> ComposeResult:
        with Vertical(id="connect-dialog"):
            yield Static("[b]Connect via SSH[/b]\nLeave the password empty when using a key.")
            for key, label, secret in FORM_FIELDS:
                yield Input(
                    value=self.defaults.get(key, ""),
                    placeholder=label,
                    password=secret,
                    id=f"connect-{key}",
                )
            yield Checkbox(
                "Trust new host key", self.trust_new_host, id="connect-trust"
            )
            yield Static("", id="connect-error")
            with Horizontal(id="connect-buttons"):
                yield Button("Connect", variant="primary", id="connect-ok")
                yield Button("Cancel", id="connect-cancel")

    def on_mount(self) -> None:
        self.query_one("#connect-host", Input).focus()

    def _submit(self) -> None:
        values = {key: self.query_one(f"#connect-{key}", Input).value for key, _, _ in FORM_FIELDS}
        trust = self.query_one("#connect-trust", Checkbox).value
        try:
            config = build_config(values, self.timeout, trust)
        except ValueError as exc:
            self.query_one("#connect-error", Static).update(str(exc))
            return
        self.dismiss(config)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "connect-ok":
            self._submit()
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
