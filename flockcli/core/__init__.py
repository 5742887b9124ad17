"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the paginator, bulk resolver, stream session and the command handler.
"""
