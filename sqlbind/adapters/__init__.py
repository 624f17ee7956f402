"""Backend adapters implementing the ``Connection`` and ``Handle`` protocols."""
