"""Tests for pokeduel."""
