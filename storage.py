from prefect.variables import Variable


class VariableStorage:
    """
    Key-value store for the dedup marker, kept in a single Prefect Variable.
    """

    def __init__(self, name="need_to_shovel"):
        self.name = name

    def get(self):
        return Variable.get(self.name, default=None)

    def set(self, data):
        Variable.set(self.name, data, overwrite=True)
