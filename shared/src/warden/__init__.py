"""Shared configuration, database access and models for warden."""
