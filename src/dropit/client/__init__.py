"""Client poller and command-line presenter."""

from dropit.client.poller import DropItClient, NegotiationPoller, describe_phase

__all__ = ["DropItClient", "NegotiationPoller", "describe_phase"]
