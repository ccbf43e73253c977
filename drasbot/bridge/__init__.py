from drasbot.bridge.client import ConnectionStatus, WhatsAppBridgeClient, to_jid

__all__ = ["ConnectionStatus", "WhatsAppBridgeClient", "to_jid"]
