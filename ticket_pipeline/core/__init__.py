"""Pipeline core: staleness, status resolvers, polling, gating and orchestration."""
