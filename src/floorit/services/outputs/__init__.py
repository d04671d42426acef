"""Output serializers."""
