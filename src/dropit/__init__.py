"""DropIt: customer-service calls placed by a voice agent, tracked to an outcome."""
