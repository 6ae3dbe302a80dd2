"""Camada de serviço (regras de negócio de pedidos)."""
