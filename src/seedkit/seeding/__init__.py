from .seeder import DataSeeder, SeedContext, SeedContributor, Seeder, UpsertSeedContributor

__all__ = [
    "DataSeeder",
    "SeedContext",
    "SeedContributor",
    "Seeder",
    "UpsertSeedContributor",
]
