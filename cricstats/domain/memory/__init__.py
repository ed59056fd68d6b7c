# Conversation memory for the question pipeline

# +---------------------+        +---------------------+
# |   Running summary   |        |   Recent turns      |   (record store, per user)
# |---------------------|        |---------------------|
# | one per user        |        | question / answer   |
# | rewritten on        |        | records retrieved   |
# |   compaction        |        | created_at          |
# +---------------------+        +---------------------+
#            \                          /
#             \                        /
#              v                      v
#        +----------------------------------+
#        |          Memory context          |   (assembled per run)
#        |----------------------------------|
#        | summary + last N session turns   |
#        +----------------------------------+
#                      |
#                      v
#              [query synthesizer]
