"""Shell commands exposing KeyedTable functionalities.

KQuery (keyed query)
====================

``keyedtable-query`` loads a CSV or Parquet file and queries it::

    keyedtable-query -k asset -w asset=A -s id -s signal data.csv

Rows can be grouped and aggregated::

    keyedtable-query -b asset -a "avg=mean(signal)" -a "rows=count()" data.csv

It can be tested against provided example data running it with the following command::

    keyedtable-query -k asset -b asset -a "avg=mean(signal)" examples/data/signals.csv
"""
