import json
from types import SimpleNamespace


class IndexableNamespace(SimpleNamespace):
    def __len__(self):
        return len(self.__dict__)

    def __getitem__(self, key):
        return self.__dict__[key]

    def __contains__(self, key):
        try:
            self.__dict__[key]
            return True
        except KeyError:
            return False

    def get(self, key, default=None):
        try:
            return self.__dict__[key]
        except KeyError:
            return default


class Settings(IndexableNamespace):
    default_settings = {
        "network": {
            # MainNet
            "magic": 860833102,
            "account_version": 53,
        },
        "builder": {
            "valid_until_block_increment": 1500,
            "max_valid_until_block_increment": 5760,
            "max_script_size": 65536,
            "fee_margin_percent": 0,
        },
        "rpc": {
            "request_timeout": 30.0,
            "max_retries": 3,
            "retry_delay": 1.0,
            "max_retry_delay": 30.0,
        },
    }

    @classmethod
    def from_json(cls, json: dict):
        o = cls(**json)
        o._convert(o.__dict__, o.__dict__)
        return o

    @classmethod
    def from_file(cls, path_to_json: str):
        with open(path_to_json, "r") as f:
            data = json.load(f)
        return cls.from_json(data)

    def register(self, json: dict):
        """
        Overlay `json` on top of the current values. Nested sections are merged, not replaced.
        """
        for k, v in json.items():
            current = self.__dict__.get(k)
            if isinstance(v, dict) and isinstance(current, IndexableNamespace):
                current.__dict__.update(v)
                self._convert(current.__dict__, current.__dict__)
            else:
                self.__dict__[k] = v
        self._convert(self.__dict__, self.__dict__)

    def _convert(self, what: dict, where: dict):
        # turn all _dictionary what into IndexableNamespaces
        to_update = []
        for k, v in what.items():
            if isinstance(v, dict):
                to_update.append((k, IndexableNamespace(**v)))

        for k, v in to_update:
            if isinstance(where, dict):
                where.update({k: v})
            else:
                where.__dict__.update({k: v})
            self._convert(where[k].__dict__, where[k].__dict__)

    def reset_settings_to_default(self):
        self.__dict__.clear()
        self.__dict__.update(self.from_json(self.default_settings).__dict__)


settings = Settings.from_json(Settings.default_settings)
