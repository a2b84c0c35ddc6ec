"""Pacote config: valores padrão, validação e leitura de .env/ambiente."""
