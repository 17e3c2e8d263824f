"""Settings, logging, errors and persistence shared by TrendBot services."""
